"""
External service adapters

- SupabaseDataStore: PostgREST/RPC client for reviews, profiles, products and orders
"""
from agribridge.adapters.supabase_client import RemoteDataStore, SupabaseDataStore, supabase_store
