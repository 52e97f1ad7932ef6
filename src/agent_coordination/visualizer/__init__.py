"""Visualizer package - Rich terminal views for coordination state."""

from .workflow_progress import (
	render_agents,
	render_templates,
	render_workflow_progress,
	render_workflow_summary,
)

__all__ = [
	"render_agents",
	"render_templates",
	"render_workflow_progress",
	"render_workflow_summary",
]
