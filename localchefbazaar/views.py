from django.http import HttpResponse, JsonResponse


def root_view(request):
    return HttpResponse("LocalChefBazaar Server Running Successfully!")


def error_404_view(request, exception):
    return JsonResponse({"success": False, "message": "Not found"}, status=404)


def error_500_view(request):
    return JsonResponse({"success": False, "message": "Internal server error"}, status=500)
