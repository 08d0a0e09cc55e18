"""Visualization of grasp selection results."""

from .grasp_plot import plot_selection

__all__ = ['plot_selection']
