"""Task service: tasks, random assignment, account synchronisation and HTTP routes."""