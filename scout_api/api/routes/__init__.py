"""
API routes, mounted under /api by scout_api.main.

This module organizes routes into:
- games: daily game cards
- players: active roster listing and player detail
- reports: scouting report CRUD and offline sync
- admin_players: player maintenance (create, update, delete, merge)
- admin_sync: manual sync triggers, deduplication and sync status
"""
