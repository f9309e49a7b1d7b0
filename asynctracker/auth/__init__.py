"""Account service: accounts, login tokens, account events and HTTP routes."""