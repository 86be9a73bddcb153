# mccdash/google/__init__.py
# Google OAuth token helpers and the Google Ads client.
