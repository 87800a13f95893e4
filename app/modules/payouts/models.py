# Supabase tables: subscription_usage, payouts_to_clubs
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

subscription_usage (one row per user, club and month):
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id, not null)
- club_id: uuid (foreign key to clubs.id, not null)
- subscription_period: date (first day of month, not null)
- subscription_type: text (not null) - values: unlimited, credits
- visit_count: integer (not null, default: 0)
- unique_visit: boolean (not null, default: false)
- unique (user_id, club_id, subscription_period)

payouts_to_clubs:
- id: uuid (primary key)
- club_id: uuid (foreign key to clubs.id, not null)
- payout_period: date (first day of month, not null)
- unlimited_amount: numeric (not null, default: 0)
- credits_amount: numeric (not null, default: 0)
- total_amount: numeric (not null, default: 0)
- unlimited_visits: integer (default: 0)
- credits_visits: integer (default: 0)
- total_visits: integer (default: 0)
- unique_users: integer (default: 0)
- status: text (not null, default: 'pending') - values: pending, processing, paid, failed
- stripe_transfer_id: text (nullable)
- retry_count: integer (default: 0)
- error_message: text (nullable)
- transfer_attempted_at: timestamp (nullable)
- transfer_completed_at: timestamp (nullable)
- created_at: timestamp (default: now())
- unique (club_id, payout_period)
"""
