"""Legal status projection and document requirements for third parties."""
