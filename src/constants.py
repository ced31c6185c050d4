# src/constants.py
class ErrorMessages:
    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_EXTENSION_NOT_FOUND = "USER_EXTENSION_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    CONNECTION_REQUEST_NOT_FOUND = "CONNECTION_REQUEST_NOT_FOUND"
    CONNECTION_REQUEST_EXISTS = "CONNECTION_REQUEST_EXISTS"
    CONNECTION_SELF_REQUEST = "CONNECTION_SELF_REQUEST"
    CONNECTION_PAIR_TORN = "CONNECTION_PAIR_TORN"
    CONNECTION_STORAGE_ERROR = "CONNECTION_STORAGE_ERROR"
    DEFAULT_ORG_ID_NOT_SET = "DEFAULT_ORG_ID_NOT_SET"
    ORG_POLICY_NOT_CONFIGURED = "ORG_POLICY_NOT_CONFIGURED"
    ORG_EXTENSION_NOT_FOUND = "ORG_EXTENSION_NOT_FOUND"
    ORGANIZATION_NOT_FOUND = "ORGANIZATION_NOT_FOUND"
    INVALID_VISIBILITY_POLICY = "INVALID_VISIBILITY_POLICY"
    PROFILE_STORAGE_ERROR = "PROFILE_STORAGE_ERROR"
    DUPLICATE_PROFILE = "DUPLICATE_PROFILE"
    UNAUTHORIZED_ORG_ADMIN = "Not authorized to manage organization policies"

class ResponseMessages:
    CONNECTION_REQUEST_SEND_SUCCESSFULLY = "CONNECTION_REQUEST_SEND_SUCCESSFULLY"
    CONNECTION_EXISTS = "CONNECTION_EXISTS"
    CONNECTION_REQUEST_APPROVED = "CONNECTION_REQUEST_APPROVED"
    CONNECTION_REQUEST_REJECTED = "CONNECTION_REQUEST_REJECTED"
    CONNECTION_LIST = "CONNECTION_LIST"
    CONNECTION_DETAILS = "CONNECTION_DETAILS"
    ORG_POLICIES_SET_SUCCESSFULLY = "ORG_POLICIES_SET_SUCCESSFULLY"
    ORG_POLICIES_SET_DEGRADED = "ORG_POLICIES_SET_DEGRADED"
    ORG_POLICIES_FETCHED_SUCCESSFULLY = "ORG_POLICIES_FETCHED_SUCCESSFULLY"
    PROFILE_CREATED = "PROFILE_CREATED"
    PROFILE_UPDATED = "PROFILE_UPDATED"
    PROFILE_FETCHED = "PROFILE_FETCHED"
    UPDATE_ORG_SUCCESSFULLY = "UPDATE_ORG_SUCCESSFULLY"
    MENTOR_LIST = "MENTOR_LIST"
    MENTEE_LIST = "MENTEE_LIST"
    SESSION_LIST = "SESSION_LIST"
    SESSION_ACCESSIBLE = "SESSION_ACCESSIBLE"

class Roles:
    ORG_ADMIN = "org_admin"
    ADMIN = "admin"

class BusinessRules:
    MIN_NAME_LENGTH = 2
    MAX_NAME_LENGTH = 100
    MAX_REQUEST_MESSAGE_LENGTH = 1000
