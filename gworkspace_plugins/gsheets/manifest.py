PLUGIN_MANIFEST = {
    "name": "gsheets",
    "display_name": "Google Sheets",
    "version": "1",
    "module": "gworkspace_plugins.gsheets.plugin:SheetsPlugin",
    # - http: Sheets and Drive REST API calls
    # - auth: service account or ADC bearer tokens
    # - storage: load sources and stored read results
    # - cursor: revision state of sheet_modified_trigger
    # - log: structured logging via host.log
    "capabilities": ["http", "auth", "storage", "cursor", "log"],
    "chat_callable_ops": ["read", "read_range"],
    "allowed_feed_ops": ["sheet_modified_trigger"],
}
