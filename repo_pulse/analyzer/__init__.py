"""Source resolution, aggregation and visualization for activity reports."""
