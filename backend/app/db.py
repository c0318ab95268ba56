"""
Database client configuration.
Uses Supabase for PostgreSQL tables (form schemas, rows, logs, counters)
and Storage (form attachments).
"""

import os
from supabase import create_client, Client
from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")

if not SUPABASE_URL:
    raise ValueError("SUPABASE_URL must be set in environment variables")

# Service-role client (bypasses RLS). Submissions are written on behalf of
# anonymous visitors, so every store in app.services uses this one.
# None when SUPABASE_SERVICE_KEY is unset; stores and health checks report it.
supabase_admin: Client = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY) if SUPABASE_SERVICE_KEY else None
