"""Booking lifecycle, payment reconciliation and cancellation penalties for the tourism marketplace."""
