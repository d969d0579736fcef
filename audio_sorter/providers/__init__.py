"Remote metadata providers."
