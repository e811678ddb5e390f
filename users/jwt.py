from rest_framework_simplejwt.tokens import RefreshToken


def tokens_for_user(user):
    """
    Issue a refresh/access pair carrying the caller's role as a claim so the
    client can pick the right portal without another round trip.
    """
    refresh = RefreshToken.for_user(user)
    refresh['role'] = user.role
    return {
        'refresh': str(refresh),
        'access': str(refresh.access_token),
    }
