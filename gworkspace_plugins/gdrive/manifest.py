PLUGIN_MANIFEST = {
    "name": "gdrive",
    "display_name": "Google Drive",
    "version": "1",
    "module": "gworkspace_plugins.gdrive.plugin:DrivePlugin",
    # - http: Drive REST API calls
    # - auth: service account or ADC bearer tokens
    # - storage: files uploaded from and downloaded to internal storage
    # - log: structured logging via host.log
    "capabilities": ["http", "auth", "storage", "log"],
    "chat_callable_ops": ["list"],
    "allowed_feed_ops": ["file_created_trigger"],
}
