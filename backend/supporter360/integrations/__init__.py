"""Provider REST API clients consumed by the event processors and poller."""
