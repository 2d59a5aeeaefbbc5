"""Clinic application for the MediLink backend.

This package contains models, serializers, services, views and route
registrations implementing the API consumed by the patient/doctor
single-page frontend.
"""
