PLUGIN_MANIFEST = {
    "name": "gmail",
    "display_name": "Gmail",
    "version": "1",
    "module": "gworkspace_plugins.gmail.plugin:GmailPlugin",
    # - http: Gmail REST API calls
    # - auth: OAuth refresh-token exchange for the mailbox owner
    # - storage: attachments read from internal storage
    # - log: structured logging via host.log
    "capabilities": ["http", "auth", "storage", "log"],
    "chat_callable_ops": ["list", "get"],
    "allowed_feed_ops": ["mail_received"],
}
