PLUGIN_MANIFEST = {
    "name": "gcalendar",
    "display_name": "Google Calendar",
    "version": "1",
    "module": "gworkspace_plugins.gcalendar.plugin:CalendarPlugin",
    # - http: Calendar REST API calls
    # - auth: service account or ADC bearer tokens
    # - log: structured logging via host.log
    "capabilities": ["http", "auth", "log"],
    "chat_callable_ops": ["get_event", "list_events"],
    "allowed_feed_ops": ["event_created_trigger"],
    "op_auth": {
        op: {"provider": "google", "scopes": ["https://www.googleapis.com/auth/calendar"]}
        for op in (
            "insert_event",
            "get_event",
            "list_events",
            "update_event",
            "delete_event",
            "event_created_trigger",
        )
    },
}
