"""firerest: REST fallback for the Firestore and Identity Toolkit admin SDKs."""

__version__ = "1.0.0"
