"""Bridges to external collaborators: Supabase, the identity provider, chat."""
