PLUGIN_MANIFEST = {
    "name": "gchat",
    "display_name": "Google Chat",
    "version": "1",
    "module": "gworkspace_plugins.gchat.plugin:ChatPlugin",
    # - http: POST to the space's incoming webhook URL (the URL carries the key)
    # - log: structured logging via host.log
    "capabilities": ["http", "log"],
    "chat_callable_ops": [],
    "allowed_feed_ops": [],
}
