"""Google Workspace plugins: Calendar, Drive, Sheets, Gmail and Chat."""
