# Supabase tables: clubs, reviews, favorites (classes: see bookings/models.py)
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

clubs:
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id) - the club admin who owns it
- name: text (not null)
- description: text (nullable)
- type: text (nullable) - e.g. gym, yoga, climbing
- address: text, city: text, area: text (nullable)
- latitude: numeric, longitude: numeric (nullable)
- credits: integer (default: 1) - credits a visit costs
- avg_rating: numeric (default: 0) - recomputed on every review write
- open_hours: jsonb (nullable) - {"monday": "06:00-22:00", ..., "sunday": "closed"}
- amenities: text[] (default: {})
- photos: text[] (default: {})
- image_url: text (nullable)
- stripe_account_id: text (nullable) - Stripe Connect Express account
- payouts_enabled: boolean (default: false)
- kyc_status: text (default: 'not_started') - values: not_started, pending, needs_input, verified
- stripe_onboarding_complete: boolean (default: false)
- created_at: timestamp, updated_at: timestamp

reviews:
- id: uuid (primary key)
- club_id: uuid (foreign key to clubs.id, not null)
- user_id: uuid (foreign key to profiles.id, not null)
- rating: integer (not null) - 1..5
- comment: text (nullable)
- created_at: timestamp, updated_at: timestamp
- unique (user_id, club_id)

favorites:
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id, not null)
- club_id: uuid (foreign key to clubs.id, not null)
- created_at: timestamp (default: now())
- unique (user_id, club_id)
"""
