"""Notification service for the daily lunch ordering app."""
