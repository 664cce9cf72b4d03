"""
AI receptionist booking backend.

Phone-call and web-form booking intake backed by Firestore, Google Sheets
and Twilio SMS.
"""
