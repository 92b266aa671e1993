"""
Business logic behind the HTTP routes and the sync jobs.

This module organizes services into:
- player_service, game_service, report_service: request-facing workflows
- ratings: scouting rating schema and computed values
- serializers: JSON shapes returned by the API
- alert_service: Slack alerts for failed jobs
- sync: provider clients, orchestrators and the job layer
"""
