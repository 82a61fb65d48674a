"""Flight offer discovery engine: polling search sessions, filters, ranking and multi-date discovery."""
