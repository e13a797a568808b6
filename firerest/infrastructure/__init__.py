"""Infrastructure: Firebase REST clients and the firebase-admin adapter."""
