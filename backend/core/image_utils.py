"""Image URL utilities for CloudFront and S3 delivery"""
from django.conf import settings

S3_HOST_MARKER = '.amazonaws.com/'
DEFAULT_IMAGE_FOLDER = 'images'


def get_cloudfront_domain():
    return getattr(settings, 'CLOUDFRONT_DOMAIN', '')


def _is_s3_url(url):
    return '.s3.' in url and S3_HOST_MARKER in url


def build_cloudfront_url(s3_key):
    """Build a CloudFront URL from an S3 key"""
    clean_key = s3_key[1:] if s3_key.startswith('/') else s3_key
    return f'https://{get_cloudfront_domain()}/{clean_key}'


def normalize_image_url(url):
    """
    Rewrite any stored image reference to its CloudFront URL.

    External images (absolute URLs on other hosts) are returned untouched.
    """
    if not url:
        return None

    cloudfront = get_cloudfront_domain()
    if cloudfront and cloudfront in url:
        return url

    if _is_s3_url(url):
        key = url.split(S3_HOST_MARKER, 1)[1]
        return build_cloudfront_url(key)

    if not url.startswith('http'):
        return build_cloudfront_url(url)

    return url


def extract_s3_key(url):
    """Extract the S3 key from a CloudFront or S3 URL, None for anything else"""
    if not url:
        return None

    cloudfront = get_cloudfront_domain()
    if cloudfront and cloudfront in url:
        return url.split(f'{cloudfront}/', 1)[-1] if f'{cloudfront}/' in url else None

    if _is_s3_url(url):
        return url.split(S3_HOST_MARKER, 1)[1] or None

    return None


def is_our_image(url):
    if not url:
        return False
    cloudfront = get_cloudfront_domain()
    return bool(cloudfront and cloudfront in url) or _is_s3_url(url)


def get_image_folder(s3_key):
    parts = s3_key.split('/')
    return parts[0] if len(parts) > 1 else DEFAULT_IMAGE_FOLDER
