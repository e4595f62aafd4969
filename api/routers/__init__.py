"""
API Routers - Organized endpoint handlers for the Scheduling API.

Each router handles a specific domain:
- schedule: Grid building, solving, conflicts, feasibility, analytics and views
- weather: Weather impact and substitution apply
"""
