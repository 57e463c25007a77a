"""Client-side state stores: storage, auth session, booking and doctor notes."""
