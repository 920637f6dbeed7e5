# Diagnostic PIDs - commonly useful for troubleshooting
DIAGNOSTIC_PIDS = ["05", "0C", "0D", "11", "45", "49", "4A", "4C", "42", "0B", "06", "07"]

# Temperature PIDs
TEMPERATURE_PIDS = ["05", "0F", "46", "5C"]

# Throttle-related PIDs - useful for ETC issues
THROTTLE_PIDS = ["11", "45", "47", "4C", "49", "4A"]

# Fuel system
FUEL_PIDS = ["06", "07", "08", "09", "0A", "2F", "5E"]

# Values expected to move while the engine runs (stuck detection)
DYNAMIC_PIDS = ["0C", "0D", "10", "11", "0B", "0E", "04"]
