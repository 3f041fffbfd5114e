import os
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("SHOPIFY_API_KEY", "test_key")
os.environ.setdefault("SHOPIFY_API_SECRET", "test_secret")
os.environ.setdefault("SHOPIFY_REDIRECT_URI", "https://example.ngrok.app/auth/callback")
os.environ.setdefault("SHOPIFY_ADMIN_API_VERSION", "2024-07")
