# Supabase tables: conversations, conversation_participants, messages
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

conversations:
- id: uuid (primary key)
- created_at: timestamp (default: now())
- updated_at: timestamp
- last_message_text: text (nullable)
- last_message_at: timestamp (nullable)
- last_message_sender_id: uuid (nullable)

conversation_participants:
- id: uuid (primary key)
- conversation_id: uuid (foreign key to conversations.id, on delete cascade)
- user_id: uuid (foreign key to profiles.id)
- joined_at: timestamp (default: now())
- last_read_at: timestamp (nullable)
- unread_count: integer (default: 0)
- is_muted: boolean (default: false)
- unique (conversation_id, user_id)

messages:
- id: uuid (primary key)
- conversation_id: uuid (foreign key to conversations.id, on delete cascade)
- sender_id: uuid (foreign key to profiles.id)
- text: text (not null, at most 2000 characters)
- is_edited: boolean (default: false)
- is_deleted: boolean (default: false)
- deleted_at: timestamp (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

RPC get_or_create_conversation(user1_id, user2_id) -> uuid returns the
two-person conversation, creating it with both participants when missing.
"""
