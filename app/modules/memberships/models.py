# Supabase tables: membership_plans, memberships
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Memberships are a projection of Stripe subscriptions; the webhook keeps them current

"""
Expected Supabase table structure:

membership_plans:
- id: uuid (primary key)
- title: text (not null)
- description: text (nullable)
- price: numeric (not null) - SEK per month
- credits: integer (not null, default: 0) - 0 for unlimited plans
- max_daily_gyms: integer (not null, default: 0) - > 0 marks a Daily Access plan
- features: text[] (default: {})
- popular: boolean (default: false)
- button_text: text (default: 'Choose')
- stripe_product_id: text (nullable)
- stripe_price_id: text (unique, nullable)
- currency: text (default: 'sek')
- is_trial: boolean (default: false)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

memberships:
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id, not null)
- plan_id: uuid (foreign key to membership_plans.id, nullable)
- plan_type: text (not null) - plan title at the time of purchase
- credits: integer (not null, default: 0)
- credits_used: integer (not null, default: 0)
- is_active: boolean (default: true)
- start_date: timestamp (not null)
- end_date: timestamp (nullable) - current billing period end
- next_cycle_date: timestamp (nullable) - set when a plan change is scheduled
- has_used_trial: boolean (default: false)
- trial_end_date: timestamp (nullable)
- stripe_customer_id: text (nullable)
- stripe_subscription_id: text (nullable)
- stripe_price_id: text (nullable)
- stripe_status: text (nullable) - mirrors Stripe subscription status
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
"""
