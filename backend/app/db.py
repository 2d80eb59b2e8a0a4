"""
Database client configuration.
Uses Supabase (PostgREST) for provider, quotation and routing-log tables.
"""

import os
from typing import Optional

from supabase import create_client, Client
from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")


class StorageUnavailableError(RuntimeError):
    """Raised when a lookup needs Supabase but the admin client is not configured."""


# Admin client for service-level operations (bypasses RLS).
# None when the service key is missing: lookups fail, audit logging is skipped.
supabase_admin: Optional[Client] = (
    create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
    if SUPABASE_URL and SUPABASE_SERVICE_KEY
    else None
)
