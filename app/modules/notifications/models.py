# Supabase table: notifications
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Device tokens live on profiles.push_token (Expo push token, nullable)

"""
Expected Supabase table structure:

notifications (in-app inbox; every push is also stored here):
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id, not null)
- title: text (not null)
- body: text (not null)
- data: jsonb (default: {})
- type: text (not null, default: 'general') - values: general, message, booking, payment, newsletter
- read: boolean (default: false)
- created_at: timestamp (default: now())
"""
