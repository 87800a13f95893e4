# Supabase table: visits
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

visits:
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id, not null)
- club_id: uuid (foreign key to clubs.id, not null)
- booking_id: uuid (nullable) - booking that was checked in, if any
- visit_date: timestamp (not null)
- created_at: timestamp (not null) - same instant as visit_date; analytics windows read this
- credits_used: integer (default: 0)
- subscription_type: text (not null) - values: unlimited, credits
- cost_to_club: numeric (not null, default: 0) - SEK owed to the club for this visit
- unique_monthly_visit: boolean (default: false) - first visit to this club this month
- payout_processed: boolean (default: false)

Visit counts per user, club and month are mirrored into subscription_usage (see payouts/models.py).
"""
