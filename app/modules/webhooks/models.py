# Supabase table: stripe_webhook_events, payments
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Memberships, subscriptions and clubs rows are updated by the handlers, see their modules

"""
Expected Supabase table structure:

stripe_webhook_events (processed event ids, for redelivery detection):
- id: text (primary key) - Stripe event id (evt_...)
- type: text (not null)
- status: text (not null) - values: processed, failed
- error_message: text (nullable)
- processed_at: timestamp (default: now())

payments:
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id, nullable)
- stripe_invoice_id: text (unique, not null)
- stripe_subscription_id: text (nullable)
- amount: numeric (not null) - major currency units
- currency: text (not null)
- status: text (not null) - values: succeeded, failed
- billing_reason: text (nullable)
- created_at: timestamp (default: now())
"""
