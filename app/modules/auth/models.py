# Supabase Auth
# This module uses Supabase's built-in authentication system
# Supabase Auth handles:
# - User registration (auth.users table)
# - User login and session management
# - JWT token generation and validation
# - Password hashing and security

"""
Supabase Auth provides:
- auth.sign_up() - Register new users
- auth.sign_in_with_password() - Authenticate users
- auth.get_user() - Get current user from JWT token
- auth.sign_out() - Logout users
- auth.admin.delete_user() - Remove a user (service role, used for account deletion)

Every auth user gets a row in public.profiles (see profiles/models.py), created at registration.
Platform admins carry app_metadata.type = "admin", set server-side in the Supabase dashboard.
"""
