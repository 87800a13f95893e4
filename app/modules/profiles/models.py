# Supabase Table Schema for profiles
# This file documents the expected database schema
# Tables should be created in Supabase dashboard or via migrations

"""
CREATE TABLE profiles (
    id UUID PRIMARY KEY REFERENCES auth.users(id) ON DELETE CASCADE,
    email TEXT,
    display_name TEXT,
    first_name TEXT,
    last_name TEXT,
    avatar_url TEXT,
    role TEXT NOT NULL DEFAULT 'user',  -- user | club
    credits INTEGER NOT NULL DEFAULT 0,
    push_token TEXT,
    pushnotifications BOOLEAN NOT NULL DEFAULT TRUE,
    marketingnotifications BOOLEAN NOT NULL DEFAULT FALSE,
    analytics BOOLEAN NOT NULL DEFAULT TRUE,
    profile_visibility BOOLEAN NOT NULL DEFAULT TRUE,
    location_sharing_enabled BOOLEAN NOT NULL DEFAULT FALSE,
    stripe_customer_id TEXT,
    created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
    updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
);

-- credits mirrors the remaining credits of the active membership
-- role is fixed at registration; platform admins are flagged in auth app_metadata
"""
