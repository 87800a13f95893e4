# Supabase table: user_selected_gyms
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

user_selected_gyms (Daily Access gym picks):
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id, not null)
- club_id: uuid (foreign key to clubs.id, not null)
- status: text (not null) - values: pending, active, removed
  pending: takes effect at effective_from (next billing cycle)
  active: usable now
  removed: still usable until effective_from, then deleted
- effective_from: timestamp (not null)
- created_at: timestamp (default: now())
"""
