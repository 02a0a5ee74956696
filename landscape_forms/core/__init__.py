# Core infrastructure - configuration-backed database access, errors, authorization
