"""Portal application for the intranet backend.

This package contains the models, services, serializers, views and route
registrations behind the organization / employee / task / schedule / file
administration API and its realtime channels.
"""
