class InternalURIs:
    API = "/api"
    V1 = API + "/v1"
    SHORT_FORM = V1 + "/short-form"
    PROCESS = SHORT_FORM + "/process"
    STATUS = SHORT_FORM + "/status"
    DETECT = SHORT_FORM + "/detect"
    PLATFORMS = SHORT_FORM + "/platforms"


class Headers:
    # Populated by the identity provider in front of this service.
    OWNER_ID = "X-User-Id"
    FORWARDED_FOR = "x-forwarded-for"
    RETRY_AFTER = "Retry-After"


USER_AGENT = "ShortFormVideoProcessor/1.0"
