"""Shared helpers: time, events, locking, HTTP envelopes and Socket.IO emitters."""
