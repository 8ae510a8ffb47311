"""Meeting scheduling module -- time resolution, conflicts, and provider sync.

Provides the timezone clock and slot catalog, the start/end/duration
reconciler, the advisory conflict detector, and the coordinator that keeps
local meeting records in step with the external meeting-link provider.
"""
