# Supabase tables: subscriptions, membership_scheduled_changes
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Stripe is the source of truth; these rows are written by the API and the webhook

"""
Expected Supabase table structure:

subscriptions (one row per Stripe subscription):
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id, not null)
- membership_plan_id: uuid (foreign key to membership_plans.id, nullable)
- stripe_subscription_id: text (unique, not null)
- stripe_customer_id: text (not null)
- stripe_price_id: text (nullable)
- status: text (not null) - Stripe status: incomplete, trialing, active, past_due, canceled, ...
- current_period_start: timestamp (nullable)
- current_period_end: timestamp (nullable)
- cancel_at_period_end: boolean (default: false)
- canceled_at: timestamp (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

membership_scheduled_changes:
- id: uuid (primary key)
- membership_id: uuid (foreign key to memberships.id, not null)
- user_id: uuid (foreign key to profiles.id, not null)
- scheduled_plan_id: uuid (foreign key to membership_plans.id, not null)
- scheduled_plan_title: text
- scheduled_plan_credits: integer
- scheduled_stripe_price_id: text (not null)
- scheduled_change_date: timestamp (not null) - current period end
- stripe_schedule_id: text (nullable)
- status: text (not null, default: 'pending') - values: pending, confirmed, applied, canceled
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

profiles.stripe_customer_id holds the customer created for the user.
"""
