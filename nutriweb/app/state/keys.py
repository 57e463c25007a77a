"""Client storage keys."""

USER_KEY = "user"
BOOKING_FORM_KEY = "bookingForm"
LOGIN_OTP_EXPIRY_KEY = "login_otp_expiry"
DOCTOR_NOTES_PREFIX = "doctor_notes_draft_"
