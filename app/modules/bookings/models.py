# Supabase tables: bookings, classes
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

bookings:
- id: uuid (primary key)
- user_id: uuid (foreign key to profiles.id, not null)
- club_id: uuid (foreign key to clubs.id, not null)
- class_id: uuid (foreign key to classes.id, nullable) - null for direct visits
- credits_used: integer (default: 0)
- status: text (not null, default: 'pending') - values: pending, confirmed
  pending: direct visit, credits charged at check-in
  confirmed: class booking, credits charged at booking time
  Checked-in bookings are deleted and live on as visits.
- booking_code: text (unique, not null) - 6 uppercase letters/digits shown to the club
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

classes:
- id: uuid (primary key)
- club_id: uuid (foreign key to clubs.id, not null)
- name: text (not null)
- description: text (nullable)
- instructor_id: uuid (nullable)
- start_time: timestamp (not null)
- end_time: timestamp (not null)
- max_participants: integer (not null)
- booked_spots: integer (not null, default: 0)
- intensity: text (nullable)
- created_at: timestamp (default: now())
"""
